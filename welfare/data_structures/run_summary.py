class RunSummary:
    """
    Counters collected during one reminder run.

    processed: due special dates dispatched for the first time today
    sent / failed: individual emails delivered or failed (first attempts and retries)
    skipped: special dates skipped because of structural errors
    retried: reminder logs retried during the run
    """
    def __init__(
        self,
        processed: int = 0,
        sent: int = 0,
        failed: int = 0,
        skipped: int = 0,
        retried: int = 0
    ):
        self.processed = processed
        self.sent = sent
        self.failed = failed
        self.skipped = skipped
        self.retried = retried

    def merge(self, other: "RunSummary") -> "RunSummary":
        self.processed += other.processed
        self.sent += other.sent
        self.failed += other.failed
        self.skipped += other.skipped
        self.retried += other.retried
        return self

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "retried": self.retried,
        }

    def __repr__(self) -> str:
        return f"RunSummary({self.as_dict()})"
