LibDir = "/var/lib/waagent"
EventsDir = LibDir + "/events"

Openssl = "openssl"

MaxPendingEvents = 1000
ExtensionEventProviderId = "69B669B9-4AF8-4C50-BDC4-6006FA76E975"


class WALAEventOperation:
    Install = "Install"
    UnInstall = "UnInstall"
    Disable = "Disable"
    Enable = "Enable"
    Update = "Update"


class EventLevel:
    Informational = "Informational"
    Error = "Error"
