def session_context(request):
    return {"session_context": getattr(request, "session_context", None)}
