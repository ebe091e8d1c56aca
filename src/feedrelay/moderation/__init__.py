"""
Content classification.

- **lexicon.py**: Loads the versioned term lexicon and the disallowed-content
  rules from YAML.
- **content_classifier.py**: Weighted keyword scorer deciding whether a post
  must be age-gated, and rule checks deciding whether it must be dropped.
- **default_lexicon.yml**: The bundled lexicon.
"""
