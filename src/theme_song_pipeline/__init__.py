"""Theme Song Pipeline -- find, download, and normalize TV series theme songs.

Core modules:
    config       -- Pipeline configuration via pydantic-settings (.env + env vars)
    cli          -- Click CLI entry point. CLI flags passed as kwargs to
                    ThemeSongConfig (no env pollution).
    runner       -- Single-flight "run full-library acquisition" action
    orchestrator -- Per-series resolve/download/normalize/place loop with
                    failure isolation and a shared lazy cache directory
    chain        -- Priority-ordered fallback across providers
    matcher      -- Title variant generation and regex matching over index HTML
    normalize    -- Normalization decision (0.5 dB tolerance) and re-encoding
    ffmpeg       -- ffmpeg volumedetect/loudnorm subprocess wrappers. Parsing
                    raises VolumeParseError, never defaults to 0 dB.
    library      -- Read-only series sources (library folders, Jellyfin)
    sanitize     -- Filename sanitization and deterministic cache names

Subpackages:
    api       -- httpx helpers (GET, HEAD probe, streamed download)
    providers -- Theme song providers (Plex direct probe, TelevisionTunes scraper)
"""
