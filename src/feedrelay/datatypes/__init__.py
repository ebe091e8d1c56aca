"""
Shared data structures passed between the pipeline stages.

- **feed_datatypes.py**: Inbound envelope, raw feed items, manual submissions
  and the `InboundItem` tagged union.
- **post_datatypes.py**: The normalized `CanonicalPost` and its media refs.
- **outcome_datatypes.py**: Classification, dispatch and processing results.
"""
