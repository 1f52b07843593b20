"""VPE - vision position estimator for flight controllers."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .capture import DatasetFrameSource, FrameSource
from .config import EstimatorConfig, MavlinkConfig
from .detectors import Detector, DetectorFanout
from .estimator import CycleOutcome, EstimatorUnavailableError, PositionEstimator
from .gates import GateDecision, GateEvaluator, GateReason, GateVerdict
from .integrator import (
    IntegrationOutcome,
    IntegrationResult,
    VelocityPositionIntegrator,
)
from .messages import (
    OdometrySnapshot,
    PositionMessage,
    Severity,
    StatusMessage,
    ValidityFlags,
)
from .pose import SE3, CameraPose
from .providers import (
    Attitude,
    AttitudeProvider,
    OdometryMeasurement,
    PoseProvider,
    PoseSourceAdapter,
)
from .publisher import RateLimitedPublisher
from .reset_controller import DriftResetController
from .sim import (
    ConstantVelocityPoseProvider,
    ScriptedPoseProvider,
    SimClock,
    StaticAttitudeProvider,
)
from .state import EstimatorMode, EstimatorState
from .telemetry import (
    MavlinkAttitudeProvider,
    MavlinkTelemetry,
    RecordingTelemetry,
    TelemetrySink,
)
from .visualization import RerunVisualizer

__all__ = [
    "__version__",
    # Estimator
    "PositionEstimator",
    "CycleOutcome",
    "EstimatorUnavailableError",
    "EstimatorConfig",
    "EstimatorMode",
    "EstimatorState",
    # Pose
    "SE3",
    "CameraPose",
    # Collaborators
    "PoseProvider",
    "PoseSourceAdapter",
    "OdometryMeasurement",
    "AttitudeProvider",
    "Attitude",
    "FrameSource",
    "DatasetFrameSource",
    # Gates / reset / integration
    "GateEvaluator",
    "GateDecision",
    "GateVerdict",
    "GateReason",
    "DriftResetController",
    "VelocityPositionIntegrator",
    "IntegrationOutcome",
    "IntegrationResult",
    # Publishing
    "RateLimitedPublisher",
    "PositionMessage",
    "StatusMessage",
    "ValidityFlags",
    "Severity",
    "OdometrySnapshot",
    "Detector",
    "DetectorFanout",
    # Telemetry
    "TelemetrySink",
    "RecordingTelemetry",
    "MavlinkTelemetry",
    "MavlinkAttitudeProvider",
    "MavlinkConfig",
    # Simulation
    "ScriptedPoseProvider",
    "ConstantVelocityPoseProvider",
    "StaticAttitudeProvider",
    "SimClock",
    # Visualization
    "RerunVisualizer",
]
