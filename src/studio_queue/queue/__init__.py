"""Generation job queue with rate-limited, single-flight dispatch.

Why not a worker pool?
~~~~~~~~~~~~~~~~~~~~~~
The binding constraint is the generation API's per-minute quota, which is
shared by image and video requests alike.  Local compute is idle while the
remote model renders, so running tasks in parallel would only require the
same serialization again behind a semaphore.  The dispatcher therefore
advances exactly one task at a time on a fixed timer:

- pick the oldest pending task from the current queue snapshot,
- resolve the credential (pause the queue when it is missing),
- run the kind-specific handler with retry on quota/overload errors,
- write the terminal status and notify observers.

Everything runs on one asyncio loop; the only suspension points are network
calls, pacing delays and video poll waits.
"""
