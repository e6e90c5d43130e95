TICKET_KEY = "ticket:{ticket_id}:owner:{owner_id}"
QRCODE_KEY = TICKET_KEY + ":qrcode"
USER_TICKETS_KEY = "user:{owner_id}:tickets"

QR_PAYLOAD = "ticketId:{ticket_id},ownerId:{owner_id}"

EVENT_ENDED = "event has ended"
QRCODE_EXPIRED = "QR code expired"
QRCODE_UNAVAILABLE = "the QR code for this ticket is no longer available"
