"""Example registering a job on several sites and cleaning up on deactivation."""

import time

import cronplus
from cronplus import JobConfig, JobScheduler


def sync_cache(region: str) -> None:
    print(f"syncing cache for {region}")


def main() -> None:
    host = cronplus.create_host(
        {
            "cron_path": "example-cron.yml",
            "options_path": "example-options.yml",
            "multisite": True,
            "sites": [1, 2, 3],
        }
    )
    config = JobConfig(
        name="sync_cache",
        recurrence="hourly",
        callback=sync_cache,
        args=("eu",),
        multisite=True,
        owner="example/network_cleanup.py",
        run_on_creation=True,
    )
    job = JobScheduler(config, host=host)

    for site in host.tenants.sites():
        with host.tenants.switched_to(site):
            job.schedule()
    print("sites:", host.options.get(job.sites_option))

    # Fire whatever is due now, as a request handler would
    host.engine.run_due(int(time.time()))

    # Switching the extension off removes the job everywhere
    host.actions.deactivate("example/network_cleanup.py")
    print("sites after deactivation:", host.options.get(job.sites_option))


if __name__ == "__main__":
    main()
