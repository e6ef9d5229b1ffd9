"""Watch and reconcile loop settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_int, optional_env_var

DEFAULT_LABEL_SELECTOR = "importantDeployment=some-ci-system"
DEFAULT_WORKERS = 4
DEFAULT_CONFLICT_RETRIES = 5


@dataclass(frozen=True, slots=True)
class WatchConfig:
    label_selector: str = DEFAULT_LABEL_SELECTOR
    namespace: str | None = None
    workers: int = DEFAULT_WORKERS
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    delete_records: bool = False


def get_watch_config() -> WatchConfig:
    return WatchConfig(
        label_selector=optional_env_var("DEPLOYWATCH_LABEL_SELECTOR") or DEFAULT_LABEL_SELECTOR,
        namespace=optional_env_var("DEPLOYWATCH_NAMESPACE"),
        workers=env_int("DEPLOYWATCH_WORKERS", DEFAULT_WORKERS, minimum=1),
        conflict_retries=env_int(
            "DEPLOYWATCH_CONFLICT_RETRIES",
            DEFAULT_CONFLICT_RETRIES,
            minimum=1,
        ),
        delete_records=env_bool("DEPLOYWATCH_DELETE_RECORDS", default=False),
    )
