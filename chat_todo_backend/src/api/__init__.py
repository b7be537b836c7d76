"""
Chat Todo Backend package.

The FastAPI application lives in 'src.api.main'. The reconciliation core
(extraction, fingerprints, tombstones, merge) and the session orchestrator
import nothing from the web layer and can be embedded on their own.
"""
