"""
I/O services: Supabase clients, chat history, report content, API envelopes.
"""
