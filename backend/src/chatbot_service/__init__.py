"""Deployable chatbot service built on 'chat_toolkit'."""
