from datetime import timedelta

from welfare.data_structures.run_summary import RunSummary
from welfare.engine.modules.datetime_manager import DatetimeManager


def test_merge_adds_counters():
    summary = RunSummary(processed=2, sent=3, failed=1)

    summary.merge(RunSummary(sent=1, failed=2, retried=1))

    assert summary.as_dict() == {"processed": 2, "sent": 4, "failed": 3, "skipped": 0, "retried": 1}
    assert "retried" in repr(summary)


def test_datetime_manager_uses_operating_offset():
    manager = DatetimeManager(utc_offset_hours=1)

    assert manager.now().utcoffset() == timedelta(hours=1)
    assert manager.today() == manager.now().date()
