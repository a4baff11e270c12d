"""Build orchestration, publish trigger and change detection."""
