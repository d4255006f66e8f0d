"""Roadmap reconciliation for platform-owned sites.

Each pass compares the static roadmap catalog with the task records and the
artifacts persisted for a site, then queues every step whose dependencies are
satisfied. Task records alone are never trusted as proof of completion: a
COMPLETED record whose artifact is missing is deleted and the step re-queued.
"""
