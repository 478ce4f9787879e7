"""
Decoder for the Antigravity agent-state value.

The value is base64 text wrapping a protobuf ``SessionResponse``. The schema
below declares only the fields needed for display and backup naming; any
other field is kept as an unknown field by the protobuf runtime, so newer
Antigravity builds that add fields still decode.

    SessionResponse { 1: Auth auth; 2: Context context; }
    Auth            { 1: access_token; 2: token_type; 3: id_token; }
    Context         { 1: email; 2: name; 3: Plan plan; }
    Plan            { 1: slug; }
"""

import base64
import binascii
import logging

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtobufDecodeError

from ...domain.errors import DecodeError
from ...domain.models.account import DecodedSession

logger = logging.getLogger("switchboard.session_codec")

PROTO_PACKAGE = "switchboard.session"

_STRING = descriptor_pb2.FieldDescriptorProto.TYPE_STRING
_MESSAGE = descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE
_OPTIONAL = descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL

# message name -> [(field name, number, nested message or None)]
_SCHEMA = {
    "Plan": [("slug", 1, None)],
    "Auth": [("access_token", 1, None), ("token_type", 2, None), ("id_token", 3, None)],
    "Context": [("email", 1, None), ("name", 2, None), ("plan", 3, "Plan")],
    "SessionResponse": [("auth", 1, "Auth"), ("context", 2, "Context")],
}


def _build_session_class():
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="switchboard/session.proto", package=PROTO_PACKAGE, syntax="proto3",
    )
    for message_name, fields in _SCHEMA.items():
        message = file_proto.message_type.add(name=message_name)
        for field_name, number, nested in fields:
            field = message.field.add(name=field_name, number=number, label=_OPTIONAL)
            if nested is None:
                field.type = _STRING
            else:
                field.type = _MESSAGE
                field.type_name = f".{PROTO_PACKAGE}.{nested}"

    pool = descriptor_pool.DescriptorPool()
    pool.Add(file_proto)
    return message_factory.GetMessageClass(
        pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.SessionResponse")
    )


SessionResponse = _build_session_class()


def decode_session(value: str) -> DecodedSession:
    """
    Decode an agent-state value.

    Raises:
        DecodeError: if the value is not base64 or not a valid message
    """
    if not value or not value.strip():
        raise DecodeError("Agent state value is empty")

    try:
        raw = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Failed to decode agent state Base64: {e}") from e

    message = SessionResponse()
    try:
        message.ParseFromString(raw)
    except (ProtobufDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Agent state Protobuf decode failed: {e}") from e

    return DecodedSession(
        email=message.context.email,
        name=message.context.name,
        plan_slug=message.context.plan.slug,
        access_token=message.auth.access_token,
        token_type=message.auth.token_type,
        id_token=message.auth.id_token,
    )


def extract_email(value: str) -> str:
    """Decode ``value`` and return its e-mail, which names the backup file."""
    session = decode_session(value)
    if not session.email:
        raise DecodeError("Agent state has no e-mail field")
    return session.email
