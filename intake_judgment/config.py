"""
Pipeline Configuration

Loads the tunable settings of every stage from one YAML file.

File layout (every section and key is optional):

    consensus:
      conflict_penalty: 0.05
      default_weight: PREFER_EXPERT
      field_weights:
        iban: REQUIRE_MATCH
    audit:
      tolerance: "0.02"
      vat_rates: ["0", "6", "12", "21"]
    direction:
      name_similarity_threshold: 0.9
    judgment:
      preset: strict            # default | strict | lenient
      reject_threshold: 0.5     # overrides the preset
    arbitration:
      enabled: false
      timeout_seconds: 0.5
    min_classification_confidence: 0.3

Unknown sections or keys are errors, so a typo never silently falls back
to a default.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Dict, Any, Callable, Mapping

import yaml
from loguru import logger

from .decision import ArbitrationConfig, JudgmentConfig
from .direction import DirectionConfig
from .ensemble import ConsensusConfig, ModelWeight
from .validation import AuditConfig


class ConfigError(ValueError):
    """Invalid pipeline configuration."""


def _weight(value: Any) -> ModelWeight:
    try:
        return ModelWeight[str(value).strip().upper()]
    except KeyError:
        raise ConfigError(
            f"Unknown model weight {value!r}; expected one of {[w.name for w in ModelWeight]}"
        ) from None


def _decimal(value: Any) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ConfigError(f"Not a number: {value!r}") from None
    if not result.is_finite():
        raise ConfigError(f"Not a finite number: {value!r}")
    return result


def _flag(value: Any) -> bool:
    # bool('false') is True
    if not isinstance(value, bool):
        raise ConfigError(f"Expected true or false, got {value!r}")
    return value


def _strings(value: Any) -> tuple:
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


_CONVERTERS: Dict[type, Dict[str, Callable[[Any], Any]]] = {
    ConsensusConfig: {
        'fast_weight': float,
        'expert_weight': float,
        'conflict_penalty': float,
        'max_conflict_penalty': float,
        'default_weight': _weight,
        'field_weights': lambda v: {str(k): _weight(w) for k, w in dict(v).items()},
        'critical_fields': lambda v: frozenset(_strings(v)),
    },
    AuditConfig: {
        'tolerance': _decimal,
        'check_vat_rate': _flag,
        'vat_rates': lambda v: tuple(_decimal(r) for r in v),
        'vat_rate_tolerance': _decimal,
        'fee_line_prefixes': lambda v: tuple(s.lower() for s in _strings(v)),
        'fee_line_keywords': lambda v: tuple(s.lower() for s in _strings(v)),
    },
    DirectionConfig: {
        'name_match_confidence': float,
        'default_hint_confidence': float,
        'name_similarity_threshold': float,
    },
    JudgmentConfig: {
        'auto_approve_threshold': float,
        'reject_threshold': float,
        'clear_cut_approve_threshold': float,
        'clear_cut_review_threshold': float,
        'require_consensus_for_auto_approve': _flag,
        'auto_approve_with_warnings': _flag,
        'max_warnings_for_auto_approve': int,
    },
    ArbitrationConfig: {
        'enabled': _flag,
        'timeout_seconds': float,
    },
}


def _build(section: str, base: Any, data: Optional[Mapping[str, Any]]) -> Any:
    """Apply the keys of one YAML section on top of a base config."""
    if data is None:
        return base
    if not isinstance(data, Mapping):
        raise ConfigError(f"Section '{section}' must be a mapping, got {type(data).__name__}")

    converters = _CONVERTERS[type(base)]
    known = {f.name for f in dataclasses.fields(base)}

    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown key(s) in '{section}': {', '.join(map(str, unknown))}")

    changes = {}
    for key, value in data.items():
        try:
            changes[key] = converters[key](value)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for '{section}.{key}': {value!r} ({e})") from e

    return dataclasses.replace(base, **changes)


@dataclass
class PipelineConfig:
    """
    Settings for every stage of the decision pipeline.

    Usage:
        config = load_config(Path("config/pipeline.yaml"))
        pipeline = DecisionPipeline(config)
    """

    consensus: ConsensusConfig = field(default_factory=ConsensusConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    direction: DirectionConfig = field(default_factory=DirectionConfig)
    judgment: JudgmentConfig = field(default_factory=JudgmentConfig)
    arbitration: ArbitrationConfig = field(default_factory=ArbitrationConfig)

    # Below this, a classification counts as UNKNOWN
    min_classification_confidence: float = 0.30

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'PipelineConfig':
        """
        Build a config from parsed YAML.

        Raises:
            ConfigError: On unknown sections, unknown keys or bad values
        """
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")

        sections = {'consensus', 'audit', 'direction', 'judgment', 'arbitration'}
        unknown = sorted(set(data) - sections - {'min_classification_confidence'})
        if unknown:
            raise ConfigError(f"Unknown configuration section(s): {', '.join(map(str, unknown))}")

        judgment_data = dict(data.get('judgment') or {})
        preset = judgment_data.pop('preset', 'default')
        try:
            judgment_base = JudgmentConfig.preset(str(preset))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        try:
            min_confidence = float(data.get('min_classification_confidence', 0.30))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid min_classification_confidence: {e}") from e

        return cls(
            consensus=_build('consensus', ConsensusConfig(), data.get('consensus')),
            audit=_build('audit', AuditConfig(), data.get('audit')),
            direction=_build('direction', DirectionConfig(), data.get('direction')),
            judgment=_build('judgment', judgment_base, judgment_data),
            arbitration=_build('arbitration', ArbitrationConfig(), data.get('arbitration')),
            min_classification_confidence=min_confidence,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'consensus': self.consensus.to_dict(),
            'audit': self.audit.to_dict(),
            'direction': self.direction.to_dict(),
            'judgment': self.judgment.to_dict(),
            'arbitration': self.arbitration.to_dict(),
            'min_classification_confidence': self.min_classification_confidence,
        }


def load_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """
    Load pipeline configuration from a YAML file.

    Args:
        config_path: Path to the YAML file; None gives the defaults

    Returns:
        PipelineConfig

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if config_path is None:
        return PipelineConfig()

    config_path = Path(config_path)
    logger.info(f"Loading configuration from: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    config = PipelineConfig.from_dict(raw)
    logger.info(
        f"Loaded configuration (auto-approve at {config.judgment.auto_approve_threshold:.2f}, "
        f"arbitration {'on' if config.arbitration.enabled else 'off'})"
    )
    return config
