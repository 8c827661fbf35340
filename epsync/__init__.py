"""Node Endpoints Syncer (epsync).

Keeps Kubernetes Endpoints objects in sync with the nodes matching a label
selector so that a scraper can discover components that do not run as pods:
 - picks the managed services (label query or a static role mapping)
 - resolves node addresses (InternalIP first, then ExternalIP)
 - builds one fan-out Endpoints subset per service
 - creates or replaces the Endpoints object, every sync interval
"""
