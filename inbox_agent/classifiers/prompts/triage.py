"""
Prompts for job-seeker inbox triage and reply drafting.
"""

CLASSIFY_SYSTEM = (
    "You are an expert email analyzer for job seekers. "
    "Analyze emails and determine the best action to take."
)

CLASSIFY_PROMPT = """Analyze this email content and determine the appropriate action for a job seeker:

Email Content:
{body}

Rules:
1. If the email asks for a resume/CV, respond with "reply"
2. If the email mentions being selected for next round, interview, or positive response, respond with "star"
3. Otherwise, respond with "ignore"

Respond with JSON in this format:
{{
  "action": "reply|star|ignore",
  "confidence": number between 0-1,
  "reasoning": "brief explanation"
}}
"""

REPLY_SYSTEM = "You are a professional email writer helping job seekers respond to employers."

REPLY_PROMPT = """Generate a professional email reply for a job seeker who received this email:

Original Email (from {from_email}):
{body}

Context:
- You are {personal_description}
- Resume link: {resume_link}
- This is a response to a job application

Generate a polite, professional reply that:
1. Thanks them for their interest
2. Provides the resume link if they asked for it
3. Expresses enthusiasm for the opportunity
4. Keeps it concise and professional

Do not include subject line or email headers, just the body text.
"""
