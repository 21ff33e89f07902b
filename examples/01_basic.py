"""
Basic vaultup usage
"""
import asyncio
from vaultup import VaultClient


async def main():
    async with VaultClient("jwt-token", base_url="http://localhost:8008") as vault:
        
        # Small files go up in one request, large ones in chunks
        result = await vault.upload("document.pdf")
        print(f"Status: {result.status.value}, CID: {result.cid}")
        
        result = await vault.upload("movie.mkv", chunked=True)
        print(f"Upload {result.upload_id} -> job {result.job_id}")


if __name__ == "__main__":
    asyncio.run(main())
