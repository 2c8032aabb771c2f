from .config import (
    MasteringConfig,
    OracleConfig,
    SelfCorrectionConfig,
    load_mastering_config,
)

__all__ = [
    "MasteringConfig",
    "OracleConfig",
    "SelfCorrectionConfig",
    "load_mastering_config",
]
