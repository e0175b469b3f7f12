"""Timescape - gesture-driven 4-D hypercube with an afterimage snapshot mode."""

__version__ = "0.4.0"

from timescape.config import EngineConfig
from timescape.hypercube import HypercubeModel, Vector4
from timescape.gestures import GestureRecognizer, HandGesture
from timescape.interaction import InteractionController, InteractionState, GestureHold
from timescape.capture import CaptureState, CaptureStateMachine, SnapshotStore
from timescape.particles import StarField, LightningField
from timescape.surface import Surface, Camera
from timescape.profiler import FrameProfiler
from timescape.context import EngineContext
from timescape.renderer import FrameRenderer, FrameResult
