"""
Turning request payloads into canonical posts.

- **payload_validator.py**: Structural validation of webhook envelopes and
  manual submissions. All-or-nothing: one bad item rejects the request.
- **item_normalizer.py**: Converts `FeedItem` / `ManualItem` into a single
  `CanonicalPost` shape.
"""
