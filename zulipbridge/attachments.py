from __future__ import annotations
from zulipbridge.domain.models import Attachment, RelayMessage, StagedAttachments

SYSTEM_USERNAME = "<system> "

def stage_attachments(msg: RelayMessage, media_download_size: int) -> StagedAttachments:
    """Turn the files carried by a relay message into postable pieces.

    - files refused by the originating adapter become notices from <system>
    - files over the size limit are refused here too
    - everything else becomes an Attachment (comment + url)
    """
    staged = StagedAttachments()
    refused = list(msg.oversize_files)
    for f in msg.files:
        if media_download_size and f.size > media_download_size:
            refused.append(f)
            continue
        if not (f.url or f.comment):
            continue
        staged.attachments.append(Attachment(comment=f.comment, url=f.url))
    for f in refused:
        text = f"file {f.name} too big to download ({f.size} > allowed size: {media_download_size})"
        staged.notices.append(
            RelayMessage(username=SYSTEM_USERNAME, text=text, channel=msg.channel, account=msg.account)
        )
    return staged
