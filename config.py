"""
Indoor positioning runner configuration.
"""

# Scan ingestion
SCAN_CONFIG = {
    "window_s": 1.0,                  # Ingestion window / cycle period (s)
}

# RSSI -> distance calibration (site specific, tune per deployment)
RSSI_MODEL_CONFIG = {
    "model_type": "log_distance",     # "log_distance" or "linear"
    "tx_power_dbm": -59.0,            # RSSI at 1 m
    "path_loss_exponent": 2.0,        # Free space ~2, indoor 2-4
    "linear_a": -2.48,                # Linear fit slope
    "linear_b": 67.81,                # Linear fit offset
}

# Trilateration
ESTIMATOR_CONFIG = {
    "min_anchors": 3,
    "max_iterations": 20,
    "min_geometry_score": 0.05,
    "max_residual_m": 10.0,
    "use_floors": True,
}

# Session behaviour
SESSION_CONFIG = {
    "lost_after_no_fix_cycles": 1,    # No-fix cycles before "outside location"
    "enable_smoothing": True,
}

# Simulation (simulate command)
SIMULATION_CONFIG = {
    "scans_per_window": 3,
    "noise_std_db": 2.0,
    "steps": 20,                      # Path points per walk
    "seed": 42,
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
