import logging

import pytest

from mail_indexer import create_pipeline_context


@pytest.fixture
def logger():
    return logging.getLogger("test")


@pytest.fixture
def attach_dir(tmp_path):
    return str(tmp_path / "files")


@pytest.fixture
def context(logger, attach_dir):
    return create_pipeline_context(attach_dir=attach_dir, logger=logger)
