"""
Configuration management for global position estimation

Uses dataclasses for type safety and validation.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class LeastUnsquaredDeviationOptions:
    """Options for the least unsquared deviation (LUD) position estimator"""

    # Worker threads used to evaluate the residuals of the inner solve
    num_threads: int = 1

    # Cap on function evaluations of each inner nonlinear solve
    max_num_iterations: int = 400

    # When False, positions passed to estimate_positions seed the solve
    initialize_random_positions: bool = True

    # Cap on outer IRLS rounds
    max_num_reweighted_iterations: int = 10

    # Relative change in positions below which IRLS stops
    convergence_criterion: float = 1e-4

    # Residual norms are clamped to this before inverting them into weights
    min_weight_residual: float = 1e-4

    # Seed for random position initialization (None = nondeterministic)
    random_seed: Optional[int] = None

    def __post_init__(self):
        """Validate options"""
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {self.num_threads}")
        if self.max_num_iterations < 1:
            raise ValueError(f"max_num_iterations must be >= 1, got {self.max_num_iterations}")
        if self.max_num_reweighted_iterations < 1:
            raise ValueError(
                f"max_num_reweighted_iterations must be >= 1, got {self.max_num_reweighted_iterations}"
            )
        if self.convergence_criterion <= 0.0:
            raise ValueError(f"convergence_criterion must be positive, got {self.convergence_criterion}")
        if self.min_weight_residual <= 0.0:
            raise ValueError(f"min_weight_residual must be positive, got {self.min_weight_residual}")


@dataclass
class ViewGraphFilterConfig:
    """Configuration for view graph filtering"""

    # Drop view pairs outside the largest connected component before solving
    enabled: bool = True


@dataclass
class GlobalPositioningConfig:
    """Main configuration for global position estimation"""

    estimator: LeastUnsquaredDeviationOptions = field(default_factory=LeastUnsquaredDeviationOptions)
    view_graph_filter: ViewGraphFilterConfig = field(default_factory=ViewGraphFilterConfig)

    # Logging level: "DEBUG", "INFO", "WARNING", "ERROR"
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration"""
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "GlobalPositioningConfig":
        """Create config from dictionary (for JSON loading)"""
        config_dict = dict(config_dict)
        estimator = LeastUnsquaredDeviationOptions(**config_dict.pop("estimator", {}))
        view_graph_filter = ViewGraphFilterConfig(**config_dict.pop("view_graph_filter", {}))

        return cls(
            estimator=estimator,
            view_graph_filter=view_graph_filter,
            **config_dict
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export config to dictionary"""
        return {
            "estimator": asdict(self.estimator),
            "view_graph_filter": asdict(self.view_graph_filter),
            "log_level": self.log_level,
        }
