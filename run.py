import asyncio

from welfare.main import WelfareRegistry

if __name__ == '__main__':
    welfare_registry = WelfareRegistry(
        registry_config_file='registry_config.json',
        secrets_file='secrets.json',
        debug_mode=False,
    )

    asyncio.run(
        welfare_registry.run()
    )
