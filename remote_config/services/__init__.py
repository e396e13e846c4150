"""
Engine Services

- config: remote config resolution, caching and realtime updates
"""
