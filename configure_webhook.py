import asyncio

import httpx

from remindcare.config import get_settings

settings = get_settings()

# Texts and poll votes arrive as upserts; some Evolution builds report votes as updates
WEBHOOK_EVENTS = ["MESSAGES_UPSERT", "MESSAGES_UPDATE"]


async def configure_webhook():
    base_url = settings.EVOLUTION_API_URL.rstrip("/")
    instance = settings.EVOLUTION_INSTANCE
    headers = {
        "apikey": settings.EVOLUTION_API_KEY,
        "Content-Type": "application/json"
    }

    print(f"Configuring webhook for instance: {instance}")
    print(f"Target Webhook URL: {settings.WEBHOOK_URL}")

    async with httpx.AsyncClient() as client:
        # 1. Check/Create instance
        try:
            resp = await client.get(f"{base_url}/instance/fetchInstances", headers=headers)
            if resp.status_code == 401:
                print("Auth failed. Check EVOLUTION_API_KEY.")
                return
            if resp.status_code != 200:
                print(f"Error fetching instances: {resp.text}")
                return

            instances = resp.json()
            exists = any(i.get("instance", {}).get("instanceName") == instance for i in instances)

            if not exists:
                print(f"Instance {instance} not found. Creating...")
                create_resp = await client.post(
                    f"{base_url}/instance/create",
                    headers=headers,
                    json={
                        "instanceName": instance,
                        "token": "",
                        "qrcode": True
                    }
                )
                print(f"Create result: {create_resp.text}")
        except httpx.HTTPError as e:
            print(f"Connection error: {e}")
            return

        # 2. Set Webhook (single URL for every event)
        webhook_payload = {
            "url": settings.WEBHOOK_URL,
            "webhook_by_events": False,
            "webhook_base64": False,
            "events": WEBHOOK_EVENTS,
            "enabled": True
        }

        print("Setting webhook...")
        resp = await client.post(
            f"{base_url}/webhook/set/{instance}",
            headers=headers,
            json=webhook_payload
        )
        print(f"Webhook configuration result: {resp.status_code} - {resp.text}")

        # 3. Settings: groups are never subjects
        print("Updating settings...")
        settings_payload = {
            "reject_call": False,
            "groups_ignore": True,
            "always_online": False,
            "read_messages": True,
            "read_status": False,
            "sync_full_history": False
        }
        resp = await client.post(
            f"{base_url}/settings/set/{instance}",
            headers=headers,
            json=settings_payload
        )
        print(f"Settings update result: {resp.status_code} - {resp.text}")


if __name__ == "__main__":
    asyncio.run(configure_webhook())
