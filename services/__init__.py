"""
Build Services.

Service layer on top of the build state machine:

    engine_service.py    TranslationEngineService - engine and build
                         operations exposed to the platform
    cluster_monitor.py   ClusterMonitor - reconciles cluster builds from
                         task status
    build_files.py       Local build file store, corpus preprocessor and
                         pretranslation writer used by in-process stages
    build_recovery.py    LocalBuildRecovery - re-creates local builds whose
                         job was lost with a previous process

Import the modules directly; this package does not re-export on import
so that importing one service never drags in another's dependencies.
"""
