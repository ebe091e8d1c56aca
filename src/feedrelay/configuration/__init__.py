"""
Configuration management for feedrelay.

- **app_configuration.py**: File-locked YAML loader for global settings
  (provider identity, rate limits, normalizer bounds, storage, server).
- **classifier_settings.py**: Typed view of the ``classifier`` section
  (lexicon path, confidence constants, field weights).
- **dispatch_settings.py**: Typed view of the ``dispatch`` and ``age_gate``
  sections (target channels, timeout, embed styling).

Secrets (bot token, webhook secret) come from the environment, not from YAML.
"""
