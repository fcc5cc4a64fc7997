"""Client for the external transcription and note-generation service.

The client only moves bytes and maps transport/status failures to typed errors:
- No prompt, transcript or response logging (all may contain PHI).
- No interpretation of response content; that is the normalizer's job.
- Every call carries the caller's request token so stale results can be discarded.
"""
