"""Per-call bridge between a Twilio media stream and the OpenAI Realtime endpoint.

Each call owns two legs (telephony and AI) plus a transcript kept in the
session store. The bridge finalizes a call exactly once, after the telephony
leg closes, by handing the transcript to the post-call extractor.
"""
