"""Zyra - send and receive money over WhatsApp"""
