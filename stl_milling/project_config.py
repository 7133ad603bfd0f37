"""
Per-project planner settings stored as JSON (.fouraxis.json).

Lookup (first existing file wins):
    --config PATH  >  <stl dir>/.fouraxis.json  >  ./.fouraxis.json  >  ~/.fouraxis.json

Values found in the file override the dataclass defaults below; command-line
options are applied on top by main.py. Keys starting with "_" are notes and
are skipped on load, so a generated sample can be edited in place.

    {
        "visibility": {"n_directions": 16, "check_mode": "rayshooting"},
        "assignment": {"compactness": 50.0, "fix_extreme_association": true},
        "output": {"output_dir": "out", "prefix": "part"}
    }
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".fouraxis.json"

PathLike = Union[str, Path]

CHECK_MODES = ("rayshooting", "projection", "render")
SOLVERS = ("milp", "greedy")


@dataclass
class OrientationConfig:
    """Optimal orientation search."""
    n_orientations: int = 60
    deterministic: bool = True
    seed: Optional[int] = None
    spin_steps: int = 6


@dataclass
class VisibilityConfig:
    n_directions: int = 8
    limit_angle_deg: float = 80.0
    check_mode: str = "projection"
    render_resolution: int = 256


@dataclass
class DirectionsConfig:
    set_coverage: bool = True
    solver: str = "milp"
    time_limit: Optional[float] = None  # seconds, milp only


@dataclass
class AssignmentConfig:
    compactness: float = 20.0
    fix_extreme_association: bool = False
    max_cycles: Optional[int] = None  # None: until no swap lowers the energy
    not_visible_cost: float = 100000.0


@dataclass
class RestorationConfig:
    iterations: int = 5
    binary_search_iterations: int = 10
    workers: Optional[int] = None


@dataclass
class OutputConfig:
    output_dir: str = ""
    prefix: str = "component"
    save_components: bool = True
    save_restored_mesh: bool = True


# Notes written into the sample file, one per section
_SECTION_NOTES = {
    "orientation": "Rotation of the part before planning: candidates sampled on the sphere",
    "visibility": "Directions around the rotary x axis and the heightfield limit angle",
    "directions": "Set cover of the visibility matrix (milp or greedy)",
    "assignment": "Face labelling: compactness weight, pinned extremes, swap cycles",
    "restoration": "Detail restoration sweeps on the smoothed mesh",
    "output": "Where and how the milling components are written",
}


@dataclass
class PlannerConfig:
    """All sections of a .fouraxis.json file."""
    orientation: OrientationConfig = field(default_factory=OrientationConfig)
    visibility: VisibilityConfig = field(default_factory=VisibilityConfig)
    directions: DirectionsConfig = field(default_factory=DirectionsConfig)
    assignment: AssignmentConfig = field(default_factory=AssignmentConfig)
    restoration: RestorationConfig = field(default_factory=RestorationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def sections(self) -> Iterator[tuple]:
        """(name, section object) pairs in declaration order."""
        for f in fields(self):
            yield f.name, getattr(self, f.name)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: PathLike) -> None:
        Path(path).write_text(self.to_json(), encoding='utf-8')
        logger.info("Configuration written: %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlannerConfig':
        """Build a configuration on top of the defaults.

        Missing sections keep their defaults; unknown sections, unknown keys
        and "_"-prefixed notes are skipped. Integers given for float fields
        are converted.
        """
        config = cls()
        for name, section in config.sections():
            values = data.get(name)
            if not isinstance(values, dict):
                continue
            for key, value in values.items():
                if key.startswith("_"):
                    continue
                if not hasattr(section, key):
                    logger.debug("Unknown config key skipped: %s.%s", name, key)
                    continue
                current = getattr(section, key)
                if isinstance(current, float) and isinstance(value, int) and not isinstance(value, bool):
                    value = float(value)
                setattr(section, key, value)
        return config

    @classmethod
    def from_json(cls, json_str: str) -> 'PlannerConfig':
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: PathLike) -> 'PlannerConfig':
        """Read a configuration file.

        Raises:
            OSError: file cannot be read
            json.JSONDecodeError: file is not JSON
        """
        config = cls.from_json(Path(path).read_text(encoding='utf-8'))
        logger.info("Configuration read: %s", path)
        return config

    def validate(self) -> List[str]:
        """Describe the values the planner cannot run with.

        Returns:
            List of problems, empty when the configuration is usable
        """
        problems = []
        if self.visibility.check_mode not in CHECK_MODES:
            problems.append(f"visibility.check_mode must be one of {CHECK_MODES}, "
                            f"got {self.visibility.check_mode!r}")
        if self.directions.solver not in SOLVERS:
            problems.append(f"directions.solver must be one of {SOLVERS}, "
                            f"got {self.directions.solver!r}")
        if self.visibility.n_directions < 2:
            problems.append("visibility.n_directions must be at least 2")
        if not 0.0 < self.visibility.limit_angle_deg <= 90.0:
            problems.append("visibility.limit_angle_deg must be in (0, 90]")
        if self.orientation.n_orientations < 1:
            problems.append("orientation.n_orientations must be positive")
        if self.assignment.compactness < 0:
            problems.append("assignment.compactness must not be negative")
        if self.restoration.iterations < 0:
            problems.append("restoration.iterations must not be negative")
        return problems


def _candidate_paths(stl_path: Optional[PathLike]) -> Iterator[Path]:
    if stl_path:
        yield Path(stl_path).parent / CONFIG_FILENAME
    yield Path.cwd() / CONFIG_FILENAME
    yield Path.home() / CONFIG_FILENAME


def find_config_file(
    stl_path: Optional[PathLike] = None,
    explicit_config: Optional[PathLike] = None,
) -> Optional[Path]:
    """Locate the configuration file for a run.

    A missing explicit file is reported and the regular lookup continues.

    Returns:
        The first existing candidate, or None
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.is_file():
            return explicit
        logger.warning("Config file %s does not exist, searching defaults", explicit)

    return next((path for path in _candidate_paths(stl_path) if path.is_file()), None)


def load_config(
    stl_path: Optional[PathLike] = None,
    explicit_config: Optional[PathLike] = None,
) -> PlannerConfig:
    """Configuration for a run; defaults when no usable file exists.

    A file that cannot be parsed is logged and ignored. Values that fail
    validation are reported as warnings; the caller decides whether to stop.
    """
    path = find_config_file(stl_path, explicit_config)
    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILENAME)
        return PlannerConfig()

    try:
        config = PlannerConfig.load(path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read config %s: %s", path, e)
        return PlannerConfig()

    for problem in config.validate():
        logger.warning("Config %s: %s", path, problem)
    return config


def merge_configs(base: PlannerConfig, override: PlannerConfig) -> PlannerConfig:
    """Copy of `base` with every non-default value of `override` applied."""
    merged = PlannerConfig.from_dict(base.to_dict())
    defaults = PlannerConfig().to_dict()

    for name, values in override.to_dict().items():
        target = getattr(merged, name)
        for key, value in values.items():
            if value != defaults[name][key]:
                setattr(target, key, value)
    return merged


def apply_config_to_globals(config: PlannerConfig) -> None:
    """Push the tuning values into the stl_milling.config module."""
    from stl_milling import config as cfg

    updates = {
        "ORIENTATION_SPIN_STEPS": int(config.orientation.spin_steps),
        "RENDER_RESOLUTION": int(config.visibility.render_resolution),
        "NOT_VISIBLE_COST": float(config.assignment.not_visible_cost),
        "BINARY_SEARCH_ITERATIONS": int(config.restoration.binary_search_iterations),
        "RESTORATION_WORKERS": config.restoration.workers,
    }
    for name, value in updates.items():
        setattr(cfg, name, value)
    logger.debug("Global constants updated", extra={"constants": sorted(updates)})


def create_sample_config(path: PathLike = CONFIG_FILENAME) -> None:
    """Write the default configuration with a note for each section."""
    sample: Dict[str, Any] = {"_comment": "Four-axis milling planner configuration"}
    for name, values in PlannerConfig().to_dict().items():
        sample[name] = {"_comment": _SECTION_NOTES[name], **values}

    Path(path).write_text(json.dumps(sample, indent=2, ensure_ascii=False), encoding='utf-8')
    logger.info("Sample configuration written: %s", path)
