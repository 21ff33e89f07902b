"""
Observe upload progress across restarts
"""
import asyncio
from vaultup import VaultClient


async def main():
    # Snapshots survive a restart; a cleared slot is never restored
    async with VaultClient("jwt-token", storage="progress.db") as vault:
        
        if vault.progress:
            print(f"Resuming observation of job {vault.progress.job_id}")
            await vault.track(vault.progress.job_id)
        
        def on_change(progress):
            if progress is None:
                print("Progress cleared")
            elif progress.is_stalled:
                print(f"{progress.status.value}: no updates for a while")
            else:
                print(f"{progress.status.value} {progress.progress or 0}% {progress.message or ''}")
        
        def on_completed(detail):
            print(f"Stored {detail['filename']} as {detail['cid']} (proof set {detail['proof_set_id']})")
        
        vault.on('change', on_change)
        vault.on('upload_completed', on_completed)
        
        await vault.upload("photos.zip")
        
        # Poke a job that looks stuck
        if vault.progress and vault.progress.is_stalled:
            await vault.refresh_status()
        
        # Server view of a chunked upload
        status = await vault.chunked_status("upload-id")
        print(f"{status['uploadedChunks']}/{status['totalChunks']} chunks received")


if __name__ == "__main__":
    asyncio.run(main())
