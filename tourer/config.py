"""Configuration settings for Tourer."""

CONFIG = {
    # Route planning
    "max_history_size": 50,  # undo/redo entries kept per planning session
    "route_press_threshold": 50,  # meters - max distance for a press to count as "on the route"
    # Routing service (OSRM-compatible)
    "routing_url": "https://router.project-osrm.org/route/v1",
    "routing_profile": "cycling",
    "routing_timeout": 15,  # seconds
    "routing_cache_dir": "routing_cache",
    "routing_cache_max_age": 7 * 24 * 3600,  # 7 days
    "routing_retry_time": 20,  # seconds - total retry budget for the CLI
    # Active navigation
    "off_route_threshold": 50,  # meters from the route geometry
    "speed_history_size": 5,  # samples in the smoothing ring buffer
    "stopped_speed_threshold": 0.5,  # m/s - below this there is no ETA
    "gps_poll_interval": 1,  # seconds
    "log_interval": 10,  # seconds between STATE log entries
    # Replay synthesis
    "replay_sample_interval": 5,  # seconds between synthesized fixes
    # Persistence
    "db_path": "tourer_routes.db",
}
