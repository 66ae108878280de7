"""
Collaborative positioning node configuration.
"""

# Transport configuration
TRANSPORT_CONFIG = {
    "host": "0.0.0.0",          # Hub listens on all interfaces
    "port": 8888,               # Hub port, spokes connect to the same port
    "connect_timeout_s": 5.0,   # Spoke connect timeout
    "socket_poll_s": 0.5,       # Socket timeout for cancellation checks
    "max_frame_bytes": 65536,   # Largest accepted record
    "listen_backlog": 5,
}

# Device registry configuration
REGISTRY_CONFIG = {
    "device_timeout_ms": 10000,  # Device considered gone after 10s of silence
    "sweep_interval_s": 5.0,     # Liveness sweep period
}

# Local report sharing
SHARE_CONFIG = {
    "interval_s": 1.0,           # Broadcast own report every second
}

# Proximity classification
PROXIMITY_CONFIG = {
    "warning_distance_m": 50.0,      # Approaching warning below this distance...
    "warning_velocity_mps": -2.0,    # ...and below this relative velocity
    "caution_distance_m": 20.0,      # Close proximity caution
}

# Console output
OUTPUT_CONFIG = {
    "display_interval_s": 5.0,   # Print devices and proximity every 5s
}

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Virtual GNSS configuration (demo feed, no receiver needed)
VIRTUAL_GNSS_CONFIG = {
    "base_lat": 22.2900,
    "base_lon": 114.1700,
    "base_alt": 2.0,
    "position_noise_m": 0.5,
    "rate_noise_mps": 0.05,
    # svid -> nominal pseudorange rate (m/s)
    "satellites": {
        3: -412.5,
        7: 128.0,
        12: 655.2,
        19: -89.4,
        24: 301.7,
    },
}
