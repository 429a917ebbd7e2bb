"""Span names and attribute keys emitted for group call membership.

These strings are consumed by dashboards and exporter mappings; change them
only together with those consumers.
"""

# Span names
MEMBERSHIP_SPAN = "matrix.groupCallMembership"
CALL_SPAN = "matrix.call"
STATS_REPORT_SPAN = "matrix.groupCallMembership.statsReport"
AUDIO_ACTIVITY_SPAN = "matrix.audioActivity"

# Identity attributes
ATTR_CONF_ID = "matrix.confId"
ATTR_USER_ID = "matrix.userId"
ATTR_DEVICE_ID = "matrix.deviceId"
ATTR_DISPLAY_NAME = "matrix.displayName"

ATTR_TARGET_USER_ID = "matrix.call.target.userId"
ATTR_TARGET_DEVICE_ID = "matrix.call.target.deviceId"
ATTR_TARGET_DISPLAY_NAME = "matrix.call.target.displayName"

ATTR_SENDER_USER_ID = "sender.userId"
ATTR_MICROPHONE_MUTED = "matrix.microphone.muted"
ATTR_VIDEO_MUTED = "matrix.video.muted"
ATTR_SCREENSHARING_ENABLED = "matrix.screensharing.enabled"

# Membership span events
EVENT_JOIN_CALL = "matrix.joinCall"
EVENT_LEAVE_CALL = "matrix.leaveCall"
EVENT_ROOM_STATE_PREFIX = "matrix.roomStateEvent_"
EVENT_RECEIVE_NO_CALL_ID = "matrix.receive_voip_event_no_callid"
EVENT_RECEIVE_UNKNOWN_CALL_ID = "matrix.receive_voip_event_unknown_callid"
EVENT_UNDECRYPTABLE_TO_DEVICE = "matrix.toDevice.undecryptable"
EVENT_TOGGLE_MIC_MUTED = "matrix.toggleMicMuted"
EVENT_SET_MIC_MUTED = "matrix.setMicMuted"
EVENT_TOGGLE_VIDEO_MUTED = "matrix.toggleVidMuted"
EVENT_SET_VIDEO_MUTED = "matrix.setVidMuted"
EVENT_TOGGLE_SCREENSHARING = "matrix.toggleScreensharing"

# Call span events
EVENT_CALL_STATE_CHANGE = "matrix.call.stateChange"
EVENT_SEND_TO_DEVICE_PREFIX = "matrix.sendToDeviceEvent_"
EVENT_SEND_TO_ROOM_PREFIX = "matrix.sendToRoomEvent_"
EVENT_RECEIVE_VOIP = "matrix.receive_voip_event"

# Event type prefixes considered call related
CALL_EVENT_TYPE_PREFIX = "m.call"
ROOM_STATE_CALL_TYPE_PREFIXES = ("m.call", "org.matrix.msc3401.call")
