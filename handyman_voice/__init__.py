"""
Handyman Voice Bridge - Twilio phone calls to the OpenAI Realtime API

This application answers a small handyman business's phone line with an OpenAI
Realtime voice agent. It takes the caller's job, suburb, preferred time, name and
phone number, and once the caller confirms, texts the booking to the customer and
to the operator.

Architecture Overview:
- FastAPI server exposing the Twilio voice webhook and the media stream websocket
- One OpenAI Realtime session per call, bridged to the call's media stream
- Audio transcoding between 8 kHz mu-law telephony audio and 24 kHz PCM16
- Reassembly of streamed tool-call arguments into a booking
- Background SMS delivery and a CSV log of bookings

Key Components:
- audio: mu-law and resampling codec for the two audio formats
- bot: Realtime session, telephony relay, call bridge, tool-call reassembly
- config: Application-wide configuration, constants, and logging setup
- handlers: TwiML for the inbound-call webhook
- models: Call context, booking record, and wire message models
- services: Booking submission, SMS notifications, booking log

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER: for SMS
   - OPERATOR_PHONE_NUMBER: where booking notifications go
   - PUBLIC_BASE_URL: public host Twilio can reach (e.g. an ngrok URL)

2. Start the server:
   ```bash
   python -m handyman_voice.main
   ```

3. Point the Twilio number's voice webhook at ``https://your-host/voice``.
"""
