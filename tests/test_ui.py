import logging

from shell_postprocessor.ui import LoggingUi


def test_logging_ui(caplog):
    logger = logging.getLogger("ui-test")
    ui = LoggingUi(logger)
    with caplog.at_level(logging.INFO, logger=logger.name):
        ui.say("Process with shell script: a.sh")
        ui.message("line one\nline two\n")
        ui.message("")
        ui.error("failed")

    assert [r.getMessage() for r in caplog.records] == [
        "==> Process with shell script: a.sh",
        "    line one",
        "    line two",
        "failed",
    ]
    assert caplog.records[-1].levelno == logging.ERROR
