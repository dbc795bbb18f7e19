"""riskregister - document persistence and sync for community risk registers.

Registers are stored as versioned ``.litl`` JSON documents, either as local
files or as Google Drive files.

Example:
    import asyncio

    from riskregister import load_config
    from riskregister.cli.helpers import document_session
    from riskregister.ui import create_ui

    async def pull(ref: str) -> None:
        config = load_config()
        async with document_session(config, create_ui(plain=True)) as session:
            result = await session.open_reference(ref)
            print(result.outcome, session.status())
"""

from riskregister.config import Config, ConfigError, load_config
from riskregister.document import Backend, DocumentIdentity, SnapshotTracker, describe_status
from riskregister.envelope import Dataset, ParseError, decode_envelope, encode_envelope
from riskregister.errors import RiskRegisterError, UserCancelled
from riskregister.local import LocalFileBackend, LocalFileError, LocalFileHandle
from riskregister.store import DatasetStore, SessionStore
from riskregister.sync import SyncOrchestrator, SyncOutcome, SyncResult

__all__ = [
    "Backend",
    "Config",
    "ConfigError",
    "Dataset",
    "DatasetStore",
    "DocumentIdentity",
    "LocalFileBackend",
    "LocalFileError",
    "LocalFileHandle",
    "ParseError",
    "RiskRegisterError",
    "SessionStore",
    "SnapshotTracker",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncResult",
    "UserCancelled",
    "decode_envelope",
    "describe_status",
    "encode_envelope",
    "load_config",
]
