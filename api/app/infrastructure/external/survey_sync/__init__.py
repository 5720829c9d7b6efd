"""
Pipeline de sincronizacion one-way: API de encuestas -> atributos de personas.

Este paquete esta disenado para ejecutarse como job (cron / endpoint de sync),
no como parte del request/response del API.

Objetivos de diseno:
- Idempotencia: re-aplicar una respuesta deja los mismos valores.
- Tolerancia parcial: un error en una pagina no revierte lo ya escrito ni
  detiene las demas encuestas.
- Rate limit estricto: requests secuenciales con espaciado fijo.
"""
