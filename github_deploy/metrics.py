from prometheus_client import Counter, Histogram

WEBHOOKS_TOTAL = Counter(
    "github_deploy_webhooks_total",
    "Inbound webhook deliveries",
    ["outcome"],
)
DEPLOYS_TOTAL = Counter(
    "github_deploy_deploys_total",
    "Deploy attempts by terminal status",
    ["repo", "status"],
)
DEPLOY_DURATION = Histogram(
    "github_deploy_deploy_duration_seconds",
    "Deploy duration from lock acquisition to terminal status",
    ["status"],
)
STATUS_REPORTS_TOTAL = Counter(
    "github_deploy_status_reports_total",
    "Calls to the GitHub status and comment APIs",
    ["kind", "result"],
)
