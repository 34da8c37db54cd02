"""SceneCast: narrated video assembly from scene breakdowns"""

__version__ = "0.1.0"
