"""
Usage accounting -- the append-only ledger of inference calls.

  - models.py: UsageRecord and summary shapes
  - schema.py: SQLite table creation
  - ledger.py: UsageLedger (append, paginated records, summary)
  - costs.py: per-model cost estimates
  - recorder.py: UsageRecorder and the BestEffortRecorder wrapper
"""

from .costs import estimate_cost
from .ledger import UsageLedger
from .models import UsageAction, UsageRecord, UsageStatus, UsageSummary
from .recorder import BestEffortRecorder, UsageRecorder, UsageSink
