# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Ships openapi.yaml with the installed modules.
