import logging

import numpy as np
import pytest

from fastmks import FastMaxKernelSearch, build_kernel_tree
from fastmks import config as mks_config
from fastmks.diagnostics import OperationLog, log_operation
from fastmks.logging import get_logger


def _points() -> np.ndarray:
    return np.asarray(
        [
            [0.0, 0.0],
            [1.0, 1.0],
            [2.0, 2.0],
            [3.0, 0.5],
        ],
        dtype=np.float64,
    )


def test_get_logger_nests_under_package():
    assert get_logger("queries.naive").name == "fastmks.queries.naive"
    assert get_logger("fastmks.core").name == "fastmks.core"
    assert get_logger().name == "fastmks"


def test_tree_build_emits_resource_log(caplog: pytest.LogCaptureFixture) -> None:
    mks_config.reset_runtime_config_cache()
    caplog.set_level(logging.INFO, logger="fastmks.core.tree")

    build_kernel_tree(_points(), "linear", leaf_size=1)

    records = [record for record in caplog.records if "op=tree_build" in record.message]
    assert records, "expected tree_build operation log"
    message = records[-1].message
    assert "wall_ms=" in message
    assert "cpu_user_ms=" in message
    assert "rss_delta=" in message
    assert "nodes=7" in message


def test_search_emits_resource_log(caplog: pytest.LogCaptureFixture) -> None:
    mks_config.reset_runtime_config_cache()
    caplog.set_level(logging.INFO, logger="fastmks.api.search")

    indices, _ = FastMaxKernelSearch(_points(), "linear", leaf_size=1).search(2)

    assert indices.shape == (2, 4)
    records = [record for record in caplog.records if "op=fastmks_search" in record.message]
    assert records, "expected fastmks_search operation log"
    message = records[-1].message
    assert "mode=dual" in message
    assert "queries=4" in message
    assert "k=2" in message
    assert "prunes=" in message


def test_diagnostics_can_be_disabled(
    caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FASTMKS_ENABLE_DIAGNOSTICS", "0")
    mks_config.reset_runtime_config_cache()
    caplog.set_level(logging.INFO, logger="fastmks.api.search")

    FastMaxKernelSearch(_points(), "linear", naive_mode=True).search(1)

    records = [record for record in caplog.records if "op=fastmks_search" in record.message]
    assert records
    message = records[-1].message
    assert "cpu_user_ms=NA" in message
    assert "rss_delta=NA" in message
    assert "wall_ms=" in message

    monkeypatch.delenv("FASTMKS_ENABLE_DIAGNOSTICS", raising=False)
    mks_config.reset_runtime_config_cache()


def test_log_operation_formats_metadata(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("tests.diagnostics")
    caplog.set_level(logging.INFO, logger=logger.name)

    with log_operation(logger, "custom_op") as op_log:
        assert isinstance(op_log, OperationLog)
        op_log.add_metadata(ratio=0.123456789, label="x")

    message = caplog.records[-1].message
    assert message.startswith("op=custom_op ")
    assert "ratio=0.123457" in message
    assert message.endswith("label=x")
