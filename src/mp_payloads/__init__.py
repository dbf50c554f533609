"""
mp_payloads – best-effort decoding of Kafka record payloads.

Import path convention::

    from mp_payloads.serde import PayloadDeserializer, RecordRole
    from mp_payloads.serde.java import parse_serialized_object, to_plain
    from mp_payloads.kernel.errors import SerializationError
    from mp_payloads.config import EnvSettingsLoader
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
