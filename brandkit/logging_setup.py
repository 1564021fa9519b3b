import logging
import sys


class ContextFormatter(logging.Formatter):
    """Formatter that tolerates records without job_id / stage context."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "job_id"):
            record.job_id = "-"
        if not hasattr(record, "stage"):
            record.stage = "-"
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ContextFormatter(
            "%(asctime)s %(levelname)s %(name)s [job_id=%(job_id)s stage=%(stage)s] - %(message)s"
        )
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
