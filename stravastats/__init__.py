"""Monthly challenge stats tracker.

Fetches each tracked athlete's profile page, extracts the current month's
distance and moving time through an ordered cascade of heuristics, and
reconciles the result with a persisted JSON snapshot.

Key modules:
    models          -- Subject, Snapshot, MetricPair, SubjectRecord, PersistedState
    patterns        -- distance/duration regular expressions
    strategies      -- ExtractionStrategy and the concrete heuristics
    cascade         -- ExtractionCascade, first-success strategy table
    normalizer      -- canonical formatting of extracted metrics
    storage         -- StateStore and JsonStateStore
    base            -- SnapshotAcquirer abstract class
    acquirers       -- BrowserAcquirer, ImpersonatingAcquirer, HttpAcquirer
    factory         -- AcquirerFactory
    rate_limiter    -- PolitenessDelay between subjects
    metrics         -- RunMetrics for per-run outcome statistics
    orchestrator    -- Orchestrator driving one full run
    config          -- TrackerConfig and load_config
    logging_setup   -- console logging configuration
    cli             -- command-line entry point (python -m stravastats)
"""

__version__ = "0.1.0"
